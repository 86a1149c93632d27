# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

# src/gateway_proxy/routes/__init__.py
