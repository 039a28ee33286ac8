# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Test suite for Designloom."""
