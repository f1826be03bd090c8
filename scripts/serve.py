#!/usr/bin/env python3
"""
Start the AskQL API with uvicorn.

    python scripts/serve.py            # development: hot reload, one process
    python scripts/serve.py --prod     # production: no reload, SERVER__WORKERS processes

WebSocket sessions live in the memory of the worker that accepted them;
an ask request naming a session_id only reaches it when served by the
same worker. Keep SERVER__WORKERS at 1 unless the clients only use the
WebSocket endpoint.
"""

import argparse
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from dotenv import load_dotenv


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the AskQL API server")
    parser.add_argument("--prod", action="store_true", help="production settings (no reload)")
    args = parser.parse_args()

    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(env_file)
        print(f"✓ Loaded environment variables from {env_file}")
    else:
        print(f"⚠ No .env file at {env_file}; using the process environment")

    import uvicorn
    from askql.config import get_settings

    server = get_settings().server
    base_url = f"{server.host}:{server.port}"

    options = {
        "host": server.host,
        "port": server.port,
        "log_config": None,  # structlog handles output
        "access_log": False,  # logging_middleware logs each request
    }
    if args.prod:
        options.update(workers=server.workers, reload=False, server_header=False, date_header=False)
    else:
        options.update(reload=server.reload, reload_dirs=[str(src_path)])

    print(f"🚀 AskQL API ({'production' if args.prod else 'development'}) on {base_url}")
    print(f"📊 Docs:      http://{base_url}/docs")
    print(f"🔌 WebSocket: ws://{base_url}/ws/askql")

    uvicorn.run(server.app_module, **options)


if __name__ == "__main__":
    main()
