"""Application settings and constants."""

# Supported file formats
SUPPORTED_FORMATS = [".pdb", ".cif"]

# Default window dimensions
DEFAULT_WINDOW_WIDTH = 1100
DEFAULT_WINDOW_HEIGHT = 420

# File size limits (in bytes)
MAX_FILE_SIZE_WARNING = 100 * 1024 * 1024  # 100MB

# Residue numbering bounds used when hiding everything outside a range.
# MAX_RESIDUE_NUMBER is a sentinel: structures rarely exceed a few tens of
# thousands of residues per chain.
MIN_RESIDUE_NUMBER = 1
MAX_RESIDUE_NUMBER = 100000

# Chain/residue addressing ('label' or 'auth')
DEFAULT_ADDRESSING_MODE = "label"

# Selection defaults
DEFAULT_SELECTION_MODE = "multiple"
SELECTION_MODES = ["single", "range", "multiple"]

# Residue names treated as solvent
WATER_RESIDUE_NAMES = ("HOH", "WAT", "DOD", "H2O")

# Residue names hidden by the ion and common-unwanted cleanups
ION_RESIDUE_NAMES = ("NA", "CL", "K", "MG", "CA", "ZN", "FE")
COMMON_LIGAND_NAMES = ("HEM", "ATP", "ADP", "NAD", "FAD")

# Gap marker for sequence positions missing from a chain
GAP_CODE = "-"

# Remote sequence data
PDBE_MOLECULES_URL = "https://www.ebi.ac.uk/pdbe/api/pdb/entry/molecules/{pdb_id}"
HTTP_TIMEOUT = 15.0  # seconds

# Application info
APP_NAME = "SeqLink"
APP_VERSION = "0.1.0"
