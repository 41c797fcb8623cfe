"""
Test configuration for MiniML evaluator tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from environment import empty
from parsing import create_parser


@pytest.fixture
def env():
  """A fresh empty environment"""
  return empty()


@pytest.fixture
def parser():
  """A fresh parser instance"""
  return create_parser()
