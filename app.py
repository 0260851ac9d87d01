from __future__ import annotations

import argparse
import os

import uvicorn

from badgeauth.core.bootstrap import build_service
from badgeauth.core.config import ConfigManager, ConfigFsPaths
from badgeauth.core.error_reporter import ErrorReporter
from badgeauth.core.errors import ConfigError
from badgeauth.core.logger import setup_logging
from badgeauth.web.api import create_app


def main() -> None:
    ap = argparse.ArgumentParser(description="Badge + PIN sign-in service")
    ap.add_argument("--root", default=".", help="Directory holding config/, data/ and logs/.")
    ap.add_argument("--host", default=None, help="Bind host (overrides web.json).")
    ap.add_argument("--port", type=int, default=None, help="Bind port (overrides web.json).")
    args = ap.parse_args()

    bootstrap_logger = setup_logging(os.path.join(args.root, "logs"))
    cfg_mgr = ConfigManager(fs=ConfigFsPaths(args.root), logger=bootstrap_logger)
    cfg = cfg_mgr.load_all()
    log_dir = cfg_mgr.resolve_path(cfg.app.log_dir)
    logger = setup_logging(log_dir)

    try:
        service = build_service(cfg_mgr, logger=logger)
    except ConfigError as e:
        logger.error(f"Startup aborted: {e.user_message}")
        raise SystemExit(2) from e

    app = create_app(
        router=service.router,
        web_cfg=cfg.web,
        audit_logger=service.audit,
        logger=logger,
        error_reporter=ErrorReporter(path=os.path.join(log_dir, "errors.jsonl"), include_tracebacks=cfg.app.include_tracebacks),
    )
    host = args.host or cfg.web.bind_host
    port = int(args.port or cfg.web.port)
    logger.info(f"Badge auth listening on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
