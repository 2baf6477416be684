# Service layer package
from . import content_analysis, crisis_records, pattern_analysis, risk_scoring  # re-export for convenience

__all__ = [
	"content_analysis",
	"crisis_records",
	"pattern_analysis",
	"risk_scoring",
]
