import os

# Widgets and offscreen painters need a platform plugin even on CI boxes.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
