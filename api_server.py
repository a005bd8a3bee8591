"""
Dental Checkup Portal - REST API Server
Run with: python api_server.py
"""

from checkup_portal.api.app import main

if __name__ == "__main__":
    main()
