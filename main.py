#!/usr/bin/env python3
"""
============================================================================
TrustLens - Invisible Bot Verification Service
============================================================================
MAIN ENTRY POINT: boots the verification engine and its HTTP API

1. Load configuration (YAML over built-in defaults)
2. Configure structured logging
3. Build the session manager and start the TTL sweeper
4. Serve the REST API until interrupted
============================================================================
"""

import argparse
import logging
import signal
import sys
import time
from typing import Any, Dict, Optional

from trustlens import __version__
from trustlens.api import create_app
from trustlens.core.config import DEFAULT_CONFIG_PATH, DEFAULT_API_HOST, DEFAULT_API_PORT, load_config
from trustlens.core.exceptions import ConfigurationError
from trustlens.session import SessionManager
from trustlens.utils.logging_utils import (
    VerificationEventType,
    log_verification_event,
    setup_logger,
)

SYSTEM_NAME = "TrustLens Verification Service"

logger = logging.getLogger("trustlens.main")


class TrustLensSystem:
    """
    Process-level wiring of the verification engine.

    Owns the configuration, the SessionManager and the Flask application.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, verbose: bool = False):
        """
        Initialize the system with configuration.

        Args:
            config_path: Path to the YAML configuration file
            verbose: Force DEBUG logging regardless of configuration
        """
        self.start_time = time.time()

        # Step 1: Load configuration
        self.config = load_config(config_path)

        # Step 2: Setup logging system
        self._setup_logging(verbose)
        logger.info("Configuration loaded (%s)", config_path)

        # Step 3: Session manager and API
        self.manager = SessionManager.from_config(self.config)
        self.app = create_app(self.manager, self.config)

        logger.info("%s v%s initialized in %.2fs",
                    SYSTEM_NAME, __version__, time.time() - self.start_time)

    def _setup_logging(self, verbose: bool):
        log_config = self.config.get('logging', {})
        setup_logger(
            log_file=log_config.get('file'),
            log_level='DEBUG' if verbose else log_config.get('level', 'INFO'),
            enable_json=log_config.get('json', True),
        )

    def serve(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the sweeper and serve the API (blocking).

        Args:
            host: Bind address (defaults to api.host)
            port: Bind port (defaults to api.port)
        """
        api_config = self.config.get('api', {})
        host = host or api_config.get('host', DEFAULT_API_HOST)
        port = port or api_config.get('port', DEFAULT_API_PORT)

        self.manager.start()
        log_verification_event(
            VerificationEventType.SYSTEM_STARTUP,
            f"Serving API on {host}:{port}",
            details={'version': __version__},
        )
        self.app.run(host=host, port=port, threaded=True)

    def shutdown(self):
        """Stop the sweeper and release resources"""
        try:
            self.manager.shutdown()
            log_verification_event(
                VerificationEventType.SYSTEM_SHUTDOWN,
                f"Shutdown complete, uptime {time.time() - self.start_time:.2f}s",
            )
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    def get_system_health(self) -> Dict[str, Any]:
        return {
            'version': __version__,
            'uptime_seconds': time.time() - self.start_time,
            'active_sessions': len(self.manager.store),
        }


def main():
    """
    Main entry point for the TrustLens command-line interface.
    """
    parser = argparse.ArgumentParser(
        description=f"{SYSTEM_NAME} v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --config config/trustlens_config.yaml --port 8000
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f'Configuration file path (default: {DEFAULT_CONFIG_PATH})'
    )

    parser.add_argument(
        '--host',
        type=str,
        help='Host address to bind (default: api.host from configuration)'
    )

    parser.add_argument(
        '--port', '-p',
        type=int,
        help='Port to bind (default: api.port from configuration)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args()

    try:
        system = TrustLensSystem(config_path=args.config, verbose=args.verbose)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        system.serve(host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    finally:
        system.shutdown()


def signal_handler(signum, frame):
    """
    Handle SIGTERM like Ctrl+C so the finally block runs.

    Args:
        signum (int): Signal number
        frame: Current stack frame
    """
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    raise KeyboardInterrupt


if __name__ == "__main__":
    signal.signal(signal.SIGTERM, signal_handler)
    main()
