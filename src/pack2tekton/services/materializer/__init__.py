from .applier import Applier
from .kube import ClusterActivityStore, ClusterBuildNumberIssuer, ClusterClient, KubectlClient
from .writer import write_output

__all__ = [
    "Applier",
    "ClusterActivityStore",
    "ClusterBuildNumberIssuer",
    "ClusterClient",
    "KubectlClient",
    "write_output",
]
