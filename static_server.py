#!/usr/bin/env python3

import dataclasses
import logging
import mimetypes
from http import HTTPStatus
from pathlib import Path

import config

INDEX_PATHS = ("/", "/index.html")


def escape_js_string(value):
    """Escapes a value for use inside a double-quoted JS string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def render_index(directory, page_suffix):
    """
    Reads index.html from `directory` with the page suffix substituted.

    Args:
        directory: The root directory of the UI assets.
        page_suffix: Raw suffix text, escaped before substitution.

    Returns:
        The rendered page as bytes.
    """
    template = (Path(directory) / "index.html").read_text(encoding="utf-8")
    return template.replace(config.PAGE_SUFFIX_PLACEHOLDER, escape_js_string(page_suffix)).encode("utf-8")


def resolve_asset(directory, url_path):
    """Maps a URL path to a file under `directory`, or None if it falls outside it."""
    root = Path(directory).resolve()
    candidate = (root / url_path.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if not candidate.is_file():
        return None
    return candidate


def make_response(connection, status, body, content_type):
    """Builds a plain HTTP response on a connection that will not be upgraded."""
    response = connection.respond(status, "")
    response = dataclasses.replace(response, body=body)
    del response.headers["Content-Length"]
    del response.headers["Content-Type"]
    response.headers["Content-Length"] = str(len(body))
    response.headers["Content-Type"] = content_type
    return response


def serve_static(connection, url_path, directory=None, page_suffix=None):
    """
    Answers a GET for a UI asset.

    The index page gets the PAGE_SUFFIX substitution; everything else is
    served as-is with a guessed content type.
    """
    directory = config.STATIC_DIR if directory is None else directory
    page_suffix = config.PAGE_SUFFIX if page_suffix is None else page_suffix
    peer = connection.remote_address

    if url_path in INDEX_PATHS:
        try:
            body = render_index(directory, page_suffix)
        except OSError as e:
            logging.error(f"[{peer}] Failed to read index.html from '{directory}': {e}")
            return connection.respond(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to read index.html\n")
        return make_response(connection, HTTPStatus.OK, body, "text/html; charset=utf-8")

    asset = resolve_asset(directory, url_path)
    if asset is None:
        logging.debug(f"[{peer}] Static asset not found: {url_path}")
        return connection.respond(HTTPStatus.NOT_FOUND, "404 page not found\n")
    content_type, _ = mimetypes.guess_type(asset.name)
    try:
        body = asset.read_bytes()
    except OSError as e:
        logging.error(f"[{peer}] Failed to read static asset '{asset}': {e}")
        return connection.respond(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error\n")
    return make_response(connection, HTTPStatus.OK, body, content_type or "application/octet-stream")
