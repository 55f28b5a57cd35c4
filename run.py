#!/usr/bin/env python3
"""
Cash Terminal Entry Point

Starts the FastAPI server with the cash terminal core.
"""

import sys

from cash_terminal.api import run_server
from cash_terminal.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏧 Starting Cash Terminal...")
    print(f"💾 Storage backend: {config.storage_backend}")
    print(f"💵 Daily limit: ${config.daily_withdrawal_limit} / {config.daily_withdrawal_count} withdrawals")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\n👋 Shutting down Cash Terminal...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
