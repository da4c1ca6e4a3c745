# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from .loader import get_bool_env, get_int_env, get_str_env

__all__ = ["get_bool_env", "get_int_env", "get_str_env"]
