"""Terraform CLI integration."""

from hcloud_config.terraform.runner import apply, destroy, init, terraform_env

__all__ = ["apply", "destroy", "init", "terraform_env"]
