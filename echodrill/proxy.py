"""
HTTP proxies in front of the OpenAI speech services.

    POST /api/asr  {audioData: base64, mimeType, languageHint?} -> {text}
    POST /api/tts  {text, languageHint}                         -> audio/mpeg

Errors come back as {error} JSON: 405 for other methods, 400 for missing
or malformed fields, the upstream status when OpenAI fails, 500 otherwise.

Run with:
    echo-drill-proxy
"""

import base64
import binascii

from flask import Flask, Response, jsonify, request

from . import api
from .config import PROXY_HOST, PROXY_PORT
from .errors import UpstreamError
from .logger import logger

# OPTIONS is listed so Flask does not answer it automatically
ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _method_not_allowed():
    response = jsonify({"error": "Method not allowed"})
    response.status_code = 405
    response.headers["Allow"] = "POST"
    return response


def _json_fields(*required: str, optional: tuple = ()):
    """
    Required and optional string fields of the JSON request body.

    Returns None when the body is not a JSON object, a required field is
    missing or blank, or any field present is not a string.
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    fields = {}
    for name in required + optional:
        value = body.get(name)
        if value is None and name in optional:
            fields[name] = None
            continue
        if not isinstance(value, str) or (name in required and not value.strip()):
            return None
        fields[name] = value
    return fields


def create_app() -> Flask:
    app = Flask(__name__)

    @app.route("/api/asr", methods=ANY_METHOD)
    def asr():
        if request.method != "POST":
            return _method_not_allowed()

        fields = _json_fields("audioData", "mimeType", optional=("languageHint",))
        if fields is None:
            return _error("Missing audioData or mimeType", 400)

        try:
            audio = base64.b64decode(fields["audioData"], validate=True)
        except (binascii.Error, ValueError):
            return _error("audioData is not valid base64", 400)

        try:
            text = api.request_transcription(audio, fields["mimeType"], fields["languageHint"])
        except UpstreamError as e:
            return _error(e.message, e.status_code)
        except Exception as e:
            logger.error(f"ASR proxy failed: {e}", exc_info=True)
            return _error(str(e) or "ASR failed", 500)
        return jsonify({"text": text})

    @app.route("/api/tts", methods=ANY_METHOD)
    def tts():
        if request.method != "POST":
            return _method_not_allowed()

        fields = _json_fields("text", "languageHint")
        if fields is None:
            return _error("Missing text or languageHint", 400)

        try:
            audio = api.request_speech(fields["text"], fields["languageHint"])
        except UpstreamError as e:
            return _error(e.message, e.status_code)
        except Exception as e:
            logger.error(f"TTS proxy failed: {e}", exc_info=True)
            return _error(str(e) or "TTS failed", 500)

        response = Response(audio, mimetype="audio/mpeg")
        response.headers["Cache-Control"] = "no-store"
        return response

    return app


def main() -> None:
    logger.banner("Echo Drill speech proxy")
    if not api.is_api_available():
        logger.warning("Starting without OPENAI_API_KEY; every request will fail upstream")
    logger.info(f"Listening on http://{PROXY_HOST}:{PROXY_PORT}")
    create_app().run(host=PROXY_HOST, port=PROXY_PORT)


if __name__ == "__main__":
    main()
