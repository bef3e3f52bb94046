# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Utilities for checking bind addresses.
"""
import re

from ..exceptions import InvalidAddressError

_DOTTED_QUAD = re.compile(r"^[0-9]{1,3}(\.[0-9]{1,3}){3}$")


def is_ipv4(address: str) -> bool:
    """
    Checks if a string is a dotted-quad IPv4 address with octets up to 255.
    """
    if not _DOTTED_QUAD.match(address):
        return False
    return all(int(octet) <= 255 for octet in address.split("."))


def validate_ipv4(address: str) -> str:
    """
    Returns the stripped address, or raises InvalidAddressError.
    """
    address = address.strip()
    if not is_ipv4(address):
        raise InvalidAddressError(address)
    return address
