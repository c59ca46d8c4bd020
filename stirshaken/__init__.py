# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""STIR/SHAKEN SIP Identity signing and checking."""

from stirshaken.config import VERSION

__version__ = VERSION
