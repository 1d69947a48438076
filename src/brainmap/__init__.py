"""brainmap: mind map documents across FreeMind, XMind, OPML, MindManager,
MindNode and SimpleMind files."""

__version__ = "0.1.0"
