from .client import GitHubClient, HostingProvider, Repository, TagRef, parse_blob_url

__all__ = ["GitHubClient", "HostingProvider", "Repository", "TagRef", "parse_blob_url"]
