CHAT_DB_FILE_NAME = "chats.sqlite3"
FALLBACK_CACHE_DIR_NAME = "fallback"

# Chat ids produced by the folder/file import pipeline carry this prefix.
IMPORTED_CHAT_PREFIX = "imported-files"

NO_STORE_ANNOTATION = "no-store"
HIDDEN_ANNOTATION = "hidden"
CHAT_SUMMARY_ANNOTATION_TYPE = "chatSummary"

RESTORE_PROMPT = "Restore project from snapshot"
RESTORE_ARTIFACT_ID = "restored-project-setup"
RESTORE_ARTIFACT_TITLE = "Restored Project & Setup"
RESTORE_FOLLOWUP = "Lanzza restored your chat from a snapshot. You can revert this message to load the full chat history."

# Action markup understood by the MVP-builder message parser.
ARTIFACT_TAG = "boltArtifact"
ACTION_TAG = "boltAction"
