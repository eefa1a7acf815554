from . import paper_endpoints

__all__ = [
	"paper_endpoints",
]
