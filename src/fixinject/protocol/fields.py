"""Protocol constants.

Keep these in one place to avoid bare tag numbers in message handling.
"""

SOH = b"\x01"
SOH_TEXT = "\x01"

# Standard header and trailer.
BEGIN_STRING = 8
BODY_LENGTH = 9
CHECKSUM = 10
MSG_TYPE = 35
SENDER_COMP_ID = 49
TARGET_COMP_ID = 56
MSG_SEQ_NUM = 34
SENDING_TIME = 52

# Session administration.
ENCRYPT_METHOD = 98
HEARTBT_INT = 108
TEST_REQ_ID = 112
RESET_SEQ_NUM_FLAG = 141
USERNAME = 553
PASSWORD = 554
TEXT = 58
REF_SEQ_NUM = 45
BUSINESS_REJECT_REF_ID = 379

# Application.
CL_ORD_ID = 11

# Header fields in the order they are stamped after MsgType.
HEADER = (MSG_TYPE, SENDER_COMP_ID, TARGET_COMP_ID, MSG_SEQ_NUM, SENDING_TIME)

# Message types.
HEARTBEAT = "0"
TEST_REQUEST = "1"
REJECT = "3"
LOGOUT = "5"
EXECUTION_REPORT = "8"
LOGON = "A"
NEW_ORDER_SINGLE = "D"
BUSINESS_MESSAGE_REJECT = "j"

ADMIN = set((HEARTBEAT, TEST_REQUEST, LOGOUT, LOGON))
