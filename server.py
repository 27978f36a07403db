import logging
import platform
import sys
from datetime import datetime

import docker
from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from auditlog import AuditRecorder
from containerrunner import MODE_ARGS, MODE_ENV, ContainerRunner
from dockergateway import DockerGateway
from invocation import ImageReference, InvocationService
from invocationcontext import InvocationContext
from invocationerrors import TagResolutionError
from logconfig import LOGGER_NAME, init_logging
from registrytags import resolve_latest_tag
from settings import load_settings

# Headers the WSGI server computes itself
EXCLUDED_HEADERS = ['connection', 'content-encoding', 'content-length', 'transfer-encoding']


def create_app(invocation_service, settings, logger=None, tag_resolver=resolve_latest_tag):
    logger = logger or logging.getLogger(LOGGER_NAME)
    up_since = datetime.now()

    # Initialize Flask app
    app = Flask(__name__)

    # Configure CORS
    CORS(app)

    def _run(image_name, tag, mode, payload):
        image_ref = ImageReference(settings.registry, image_name, tag)
        if tag == "latest":
            try:
                image_ref = image_ref.with_tag(tag_resolver(settings.registry, image_name))
            except TagResolutionError as e:
                logger.error(e.message)
                result = invocation_service.reject(image_ref, payload, e, method=request.method)
                return jsonify(result.error.to_dict()), 404

        ctx = InvocationContext(timeout=settings.invocation_timeout)
        result = invocation_service.invoke(image_ref, mode, payload, ctx, method=request.method)
        if not result.ok:
            status = 404 if result.not_found else 500
            return jsonify(result.error.to_dict()), status

        response = Response(result.response.body, status=200)
        for key, value in result.response.headers.items():
            if key.strip().lower() not in EXCLUDED_HEADERS:
                response.headers[key.strip()] = value
        return response

    # Routes
    @app.route("/api/status", methods=["GET"])
    def status():
        logger.debug("handle health check")
        return jsonify({
            "alive": True,
            "since": str(datetime.now() - up_since),
            "version": settings.version,
            "build_date": settings.build_date,
            "python_version": platform.python_version(),
            "commit": settings.commit,
        })

    @app.route("/api/exec/<image_name>/<tag>", methods=["GET"])
    def run_container_get(image_name, tag):
        params = []
        query = request.query_string.decode("utf-8", errors="replace")
        if query:
            params.append(query)
        return _run(image_name, tag, MODE_ARGS, params)

    @app.route("/api/exec/<image_name>/<tag>", methods=["POST"])
    def run_container_post(image_name, tag):
        params = []
        body = request.get_data(as_text=True)
        if body:
            params.append(f"POST_DATA={body}")
        return _run(image_name, tag, MODE_ENV, params)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"s": "error", "errmsg": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception("unhandled error while serving %s %s", request.method, request.path)
        return jsonify({"s": "error", "errmsg": str(e)}), 500

    return app


def main():
    settings = load_settings()
    logger = init_logging(settings)

    try:
        gateway = DockerGateway.from_env(timeout=settings.invocation_timeout)
    except docker.errors.DockerException as e:
        logger.critical("could not create docker client: %s", e)
        sys.exit(1)

    runner = ContainerRunner(gateway, logger)
    recorder = AuditRecorder(logger, settings.content_length)
    app = create_app(InvocationService(gateway, runner, recorder, logger), settings, logger)
    app.run(host=settings.api_host, port=settings.api_port, threaded=True)


if __name__ == '__main__':
    main()
