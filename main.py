#!/usr/bin/env python3
"""
Main entry point for the Ticket Assistant API.
Handles server startup with environment-based configuration.
"""
import uvicorn
from ticket_assistant.config import APP_PORT

if __name__ == "__main__":
    print(f"🚀 Starting Ticket Assistant API on port {APP_PORT}")
    uvicorn.run(
        "ticket_assistant.chat_api:app",
        host="0.0.0.0",
        port=APP_PORT,
        reload=True,
        log_level="info"
    )
