from __future__ import absolute_import, division, print_function

"""
WARNING: Do not modify this file.
"""

__all__ = [
    "__title__", "__summary__", "__version__", "__author__", "__email__", "__license__", "__copyright__", "__url__"
]

__title__ = "fhegate"

__url__ = "https://github.com/fhegate/fhegate"

__summary__ = "Client-side protocol orchestration for fhEVM encryption and gateway decryption."

__version__ = "1.0.0"

__author__ = "fhegate"

__email__ = "dev@fhegate.org"

__license__ = "GNU Affero General Public License, Version 3"

__copyright__ = 'Copyright (C) 2026 fhegate'
