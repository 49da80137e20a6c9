# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""Ansible Template UI release metadata."""

from __future__ import annotations

__version__ = "0.3.0"
__author__ = "Ansible Template UI Contributors"
__codename__ = "Preview"
