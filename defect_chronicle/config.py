"""
Configuration and constants for Defect Chronicle.
"""

import os
import re
from pathlib import Path

# =============================================================================
# ISSUE TRACKER SETTINGS
# =============================================================================

JIRA_API_BASE = os.environ.get('JIRA_API_BASE', 'https://issues.apache.org/jira/rest/api/2')
JIRA_TOKEN = os.environ.get('JIRA_TOKEN', '')
JIRA_PAGE_SIZE = 1000
REQUEST_TIMEOUT = 30

# Projects whose resolved tickets seed the cold-start proportion
REFERENCE_PROJECTS = [
    'AVRO',
    'OPENJPA',
    'STORM',
    'ZOOKEEPER',
    'SYNCOPE',
    'TAJO',
    'BOOKKEEPER',
]

# =============================================================================
# LABELING SETTINGS
# =============================================================================

# Known-IV tickets required before the project's own proportion replaces cold start
PROPORTION_THRESHOLD = 5

# Share of the release timeline the walk-forward evaluation may reach
WALK_FORWARD_FRACTION = 0.40

SOURCE_EXTENSIONS = ('.py',)

# Path components that mark test code, which is never snapshotted
TEST_PATH_MARKER = re.compile(r'(^|/)(tests?|testing)(/|$)|(^|/)test_[^/]*$|_test\.py$', re.IGNORECASE)

# =============================================================================
# OUTPUT SETTINGS
# =============================================================================

OUTPUT_DIR = Path(os.environ.get('DEFECT_CHRONICLE_OUTPUT', 'datasets'))
REPO_CACHE_DIR = Path(os.environ.get('DEFECT_CHRONICLE_REPOS', 'repos'))

# Columns written for every labeled method, in order
DATASET_COLUMNS = [
    'project', 'release_index', 'release_name', 'path', 'class_name', 'method',
    # Size and complexity
    'loc', 'complexity',
    # Historical metrics
    'churn', 'loc_added', 'n_auth', 'weekend_commit_ratio', 'newcomer_risk',
    # Label
    'buggy',
]
