"""Context resolution engine for layered agent instructions, prompts, personas and skills."""

__version__ = "0.1.0"
