# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests running the store against YAML documents on disk."""
