from .models import ParsedFile, Sheet
