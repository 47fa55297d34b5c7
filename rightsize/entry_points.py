# Copyright 2022 Cisco Systems, Inc. and/or its affiliates.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# Entry points for executing functionality defined in other modules.
# Do not implement meaningful functionality here. Instead import and
# dispatch the intent into focused modules to do the real work.
# noqa

import rightsize
import rightsize.cli


def run_cli() -> None:
    """Run the rightsize CLI."""
    rightsize.logger.debug(f"rightsize v{rightsize.__version__}")
    rightsize.cli.app()
