# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

from stirshaken.cli import app

app(prog_name="stirshaken")
