from pipectl.drivers.http_cluster_directory.http_cluster_directory import HttpClusterDirectory

__all__ = ["HttpClusterDirectory"]
