"""Hooks that tailor CSI driver Kubernetes objects for AWS and Azure clusters."""

__version__ = "0.1.0"
__all__ = ["clients", "aws_ebs", "aws_efs", "azure_disk", "azure_file"]