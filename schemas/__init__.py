# Pydantic models package for crisis records and analysis results

from . import crisis_schema

__all__ = [
	"crisis_schema",
]
