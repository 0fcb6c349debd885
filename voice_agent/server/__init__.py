"""HTTP service package: the endpoints the browser client calls.

WHY: Secrets (app certificate, LLM and TTS keys) must stay server-side;
the browser only ever receives a channel name and a credential.

HOW: app.py defines the FastAPI app; models.py the Pydantic schemas;
sessions.py the in-memory registry of started agents.
"""
