import os
import tempfile

# Importing FinTrack creates a settings instance; keep it away from the user's data directory
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')
os.environ['FINTRACK_CONFIG_DIR'] = tempfile.mkdtemp(prefix='fintrack_import_')
