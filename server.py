#!/usr/bin/env python3

import asyncio
import logging
import sys

import netifaces
from websockets.asyncio.server import serve

import config
from responder import handle_echo, process_request


def get_local_ip():
    """Finds a suitable non-loopback IPv4 address for the startup banner."""
    try:
        for iface_name in netifaces.interfaces():
            if iface_name == 'lo': continue
            ifaddresses = netifaces.ifaddresses(iface_name)
            for link in ifaddresses.get(netifaces.AF_INET, []):
                ip = link.get('addr')
                if ip and not ip.startswith('127.'):
                    logging.debug(f"Using local IP {ip} from interface {iface_name}")
                    return ip
    except (OSError, ValueError) as e:
        logging.error(f"Could not determine local IP: {e}")
    return "127.0.0.1"


def create_server(host=config.SERVER_HOST, port=config.SERVER_PORT):
    """Builds the server that mounts the REST, WebSocket and static UI routes on one port."""
    return serve(
        handle_echo,
        host,
        port,
        process_request=process_request,
        ping_interval=None, # no heartbeat beyond the application-level echo
    )


async def main(host=config.SERVER_HOST, port=config.SERVER_PORT):
    logging.info(f"latency-server version {config.VERSION}")
    try:
        async with create_server(host, port):
            display_ip = get_local_ip() if host == "0.0.0.0" else host
            logging.info(f"Starting server on {host}:{port}")
            logging.info(f"Access the latency page at http://{display_ip}:{port}/")
            logging.info(f"Serving UI assets from '{config.STATIC_DIR}'")
            await asyncio.Future()
    except OSError as e:
        if "address already in use" in str(e).lower(): logging.error(f"Server failed to start: Port {port} is already in use.")
        else: logging.error(f"Server failed to start: {e}")
        return 1
    return 0


def run():
    try:
        config.setup_logging()
    except ValueError as e:
        logging.basicConfig(format=config.LOG_FORMAT)
        logging.critical(str(e))
        sys.exit(1)
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")


if __name__ == "__main__":
    run()
