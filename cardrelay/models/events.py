"""Event names exchanged over relay connections."""

# Reader status
NFC_READER_STATUS = "nfc-reader-status"
GET_NFC_STATUS = "get-nfc-status"

# Presence notifications
NFC_SWIPE = "nfc-swipe"
NFC_SWIPE_END = "nfc-swipe-end"
BOOK_TAG_SCANNED = "book-tag-scanned"

# Card writes
WRITE_TO_CARD = "write-to-card"
WRITE_CARD_DATA = "write-card-data"
WRITE_COMPLETE = "write-complete"
WRITE_FAILED = "write-failed"
CARD_WRITE_SUCCESS = "card-write-success"
CARD_WRITE_FAILED = "card-write-failed"

# Book-tag writes. The reader is sent the request event unchanged and the
# requester gets the reader's completion event name back.
WRITE_BOOK_TAG = "write-book-tag"
BOOK_TAG_WRITE_COMPLETE = "book-tag-write-complete"
BOOK_TAG_WRITE_FAILED = "book-tag-write-failed"

# Rejection of malformed frames
INVALID_PAYLOAD = "invalid-payload"

READER_EVENTS = frozenset({
    NFC_READER_STATUS,
    NFC_SWIPE,
    NFC_SWIPE_END,
    BOOK_TAG_SCANNED,
    WRITE_COMPLETE,
    WRITE_FAILED,
    BOOK_TAG_WRITE_COMPLETE,
    BOOK_TAG_WRITE_FAILED,
})

CLIENT_EVENTS = frozenset({
    GET_NFC_STATUS,
    WRITE_TO_CARD,
    WRITE_BOOK_TAG,
})
