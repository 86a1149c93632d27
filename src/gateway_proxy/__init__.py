# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

# src/gateway_proxy/__init__.py
