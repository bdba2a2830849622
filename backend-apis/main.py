# -*- coding: utf-8 -*-


# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from flask import Flask, request, jsonify, render_template
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging as log
import os
import re
import sys
from collections.abc import Callable
from functools import wraps

from typing import Any, Optional

_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _REPO_ROOT not in sys.path:
    sys.path.append(_REPO_ROOT)

from services.callback_store import CallbackRecord, CallbackStore
from services.dashboard import build_dashboard_rows
from services.payload_fields import FieldProber

from utilities import (
    AUTH_TOKEN,
    CALLBACK_DB_PATH,
    DASHBOARD_ROWS,
    FIELD_PATHS,
    HOST,
    MAX_BODY_MB,
    MAX_RECORDS,
    PORT,
)


log.basicConfig(level=log.INFO, format="%(asctime)s %(levelname)s %(message)s")

callback_store = CallbackStore(CALLBACK_DB_PATH, max_records=MAX_RECORDS)
field_prober = FieldProber(FIELD_PATHS)

_BEARER_PREFIX = re.compile(r"^\s*bearer\s+", re.IGNORECASE)


def _envelope(code: int, msg: str, **extra: Any):
    body = {"code": code, "msg": msg}
    body.update(extra)
    return jsonify(body), code


def _authorization_token(header: Optional[str]) -> str:
    if not header:
        return ""
    return _BEARER_PREFIX.sub("", header, count=1).strip()


def token_authenticated(func: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(func)
    def decorated_function(*args, **kwargs):
        if AUTH_TOKEN:
            query_token = request.args.get("token")
            header_token = _authorization_token(request.headers.get("Authorization"))
            if query_token != AUTH_TOKEN and header_token != AUTH_TOKEN:
                return _envelope(401, "Unauthorized: invalid or missing token")
        return func(*args, **kwargs)

    return decorated_function


app = Flask(__name__, template_folder=os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates"))
app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_MB * 1024 * 1024
cors = CORS(app, resources={r"/*": {"origins": "*"}})


@app.errorhandler(HTTPException)
def _http_error(e: HTTPException):
    return _envelope(e.code or 500, e.description or e.name)


@app.errorhandler(Exception)
def _unhandled_error(e: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.path)
    return _envelope(500, "internal error")


def _request_payload() -> Any:
    payload = request.get_json(silent=True)
    if payload is None and request.form:
        payload = request.form.to_dict()
    return payload if payload is not None else {}


def _client_ip() -> Optional[str]:
    forwarded = (request.headers.get("X-Forwarded-For") or "").strip()
    return forwarded or request.remote_addr or None


def _log_callback(received_at: str, payload: Any) -> None:
    # Runs after the response is sent; nothing here may reach the client.
    try:
        summary = field_prober.summarize(payload, task_id_default="-")
        log.info(
            "[%s] Callback received: status=%s taskId=%s url=%s",
            received_at,
            summary.status,
            summary.task_id,
            summary.download_url or "-",
        )
    except Exception:
        log.debug("Callback summary logging failed", exc_info=True)


@app.route("/suno/callback", methods=["POST"])
@token_authenticated
def suno_callback():
    payload = _request_payload()
    record = CallbackRecord(
        payload=payload,
        ip=_client_ip(),
        user_agent=request.headers.get("User-Agent") or None,
    )
    callback_store.append(record)

    response, status = _envelope(200, "ok")
    response.call_on_close(lambda: _log_callback(record.received_at, payload))
    return response, status


@app.route("/callbacks", methods=["GET"])
@token_authenticated
def list_callbacks():
    return _envelope(200, "ok", data=callback_store.all())


@app.route("/callbacks/<record_id>", methods=["GET"])
@token_authenticated
def get_callback(record_id: str):
    found = callback_store.find(record_id)
    if found is None:
        return _envelope(404, "not found")
    return _envelope(200, "ok", data=found)


@app.route("/", methods=["GET"])
def dashboard():
    rows = build_dashboard_rows(callback_store.latest(DASHBOARD_ROWS), field_prober)
    return render_template(
        "dashboard.html",
        rows=rows,
        max_rows=DASHBOARD_ROWS,
        auth_enabled=bool(AUTH_TOKEN),
    )


@app.route("/healthz", methods=["GET"])
def healthz():
    return _envelope(200, "ok")


def main() -> None:
    callback_store.initialize()
    log.info("Suno callback server running on http://%s:%s (store: %s)", HOST, PORT, callback_store.path)
    if AUTH_TOKEN:
        log.info("Token protection enabled. Pass ?token=... or an Authorization: Bearer header.")
    else:
        log.warning("AUTH_TOKEN not set. Endpoints are public; set AUTH_TOKEN in .env to protect them.")
    app.run(host=HOST, port=PORT, threaded=True)


if __name__ == "__main__":
    main()
