"""
Vercel entry point for AgentDesk API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("CORPUS_REFRESH_LOG_PATH", "/tmp/logs/document_chunks.log")
os.environ.setdefault("CORPUS_REFRESH_MODE", "inline")  # No background jobs in serverless

from mangum import Mangum

from agentdesk.main import app

# Lambda handler for ASGI app; lifespan builds the services
handler = Mangum(app, lifespan="auto")
