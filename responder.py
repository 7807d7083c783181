#!/usr/bin/env python3

import json
import logging
from http import HTTPStatus
from urllib.parse import urlsplit

import websockets

import config
from models import wall_ms
from static_server import make_response, serve_static


def latency_payload():
    """Body of a timestamp response: the server wall clock in ms."""
    return {"time": wall_ms()}


def latency_response(connection):
    peer = connection.remote_address
    logging.info(f"REST {config.API_LATENCY_PATH} called from {peer}")
    try:
        body = (json.dumps(latency_payload()) + "\n").encode("utf-8")
    except (TypeError, ValueError) as e:
        logging.error(f"[{peer}] Could not encode latency response: {e}")
        return connection.respond(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error\n")
    return make_response(connection, HTTPStatus.OK, body, "application/json")


def process_request(connection, request):
    """
    Routes plain HTTP requests before the WebSocket handshake.

    Returns None only for the echo endpoint so that the handshake proceeds
    there; every other path is answered directly.
    """
    path = urlsplit(request.path).path
    if path == config.WS_LATENCY_PATH:
        return None
    if path == config.API_LATENCY_PATH:
        return latency_response(connection)
    return serve_static(connection, path)


async def handle_echo(websocket):
    """Echoes every frame back unmodified until the channel fails or closes."""
    peer = websocket.remote_address
    logging.info(f"WebSocket {config.WS_LATENCY_PATH} connect from {peer}")
    try:
        async for message in websocket:
            logging.debug(f"WebSocket message from {peer}: {message!r}")
            await websocket.send(message)
    except websockets.exceptions.ConnectionClosedError as e:
        logging.warning(f"[{peer}] WebSocket read/write error: {e}")
    except websockets.exceptions.ConnectionClosedOK:
        pass
    logging.info(f"[{peer}] WebSocket connection closed.")
