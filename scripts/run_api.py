"""Run the Quote Pricing API locally with uvicorn."""
import argparse
import os
from pathlib import Path

import uvicorn

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Start the Quote Pricing API")
    parser.add_argument("--host", default=os.environ.get("QUOTE_PRICING_API_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int,
                        default=int(os.environ.get("QUOTE_PRICING_API_PORT", "8000")))
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    parser.add_argument("--log-level", default="info")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    print(f"Starting Quote Pricing API on {args.host}:{args.port}...")
    uvicorn.run(
        "quote_pricing.api.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        app_dir=str(PROJECT_ROOT / "src"),
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
