#!/usr/bin/env python3
"""
Back Office Entry Point

Starts the FastAPI server with the back office system. Host, port and
database come from BACKOFFICE_* environment variables or .env.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from back_office.api import run_server
from back_office.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Back Office...")
    print(f"Database: {config.database_url}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Back Office...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
