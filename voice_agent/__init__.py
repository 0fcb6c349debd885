"""Voice Agent: session plumbing for hosted conversational-AI voice agents.

WHY: A browser client talks to a hosted voice agent over a real-time
audio/data channel. Before joining, it needs a signed channel credential;
while connected, it receives transcript events that the agent splits into
small chunks because the data channel limits message size. This package
produces the credentials and rebuilds the transcript events.

HOW: Two independent cores, the "007" token codec (auth) and the chunk
reassembler (transcripts), plus the plumbing around them: the agent
platform client (api), the HTTP service the browser calls (server), the
.env-driven config, and a small CLI.

RULES:
- auth and transcripts never import each other
- The token codec never degrades silently; callers choose the app-id fallback
- The reassembler never raises on bad packets; it counts and drops them
"""

__version__ = "0.1.0"
