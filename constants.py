

# Command bytes (first byte of every frame)
SYNC_BYTE               = 0xAA      # handshake, sent bare without framing
CAL_CMD                 = 0x55      # calibration / interrupt
CONF_CMD                = 0x60      # charger configuration
SNAP_CMD                = 0x61      # snapshot of live state
KEEPALIVE_CMD           = 0x62      # periodic charge current request
MEM_CMD                 = 0x01      # memory access

# Memory access operations (control byte of MEM_CMD frames)
MEM_READ                = 0x04
MEM_WRITE               = 0x05

# Response status bytes
READ_OK                 = 0x81
NAK                     = 0x82      # short two byte reply, no checksum

# Charger configuration
CUTOFF_CURRENT          = 300       # mA
MAX_CURRENT             = 6000      # mA
CONF_TRAILER            = 13

CHARGE_STATE_ACTIVE     = 1
CHARGE_STATE_INIT       = 2

# Accumulator rotation used by the charger commands
INITIAL_ACC             = 0x04
ACC_VALUES              = (0x04, 0x0C, 0x1C)

# Expected response sizes (header + payload + checksum)
CONF_RESPONSE_SIZE      = 5
SNAP_RESPONSE_SIZE      = 8
KEEPALIVE_RESPONSE_SIZE = 9
CAL_RESPONSE_SIZE       = 8
WRITE_RESPONSE_SIZE     = 2

# Note register written by write_message
MESSAGE_ADDRESS         = 0x0023
MESSAGE_MAX_LENGTH      = 20
MESSAGE_PAD             = b"-"

# Serial line
BAUD_RATE               = 4800
READ_TIMEOUT            = 0.8       # seconds, raise on slow USB adapters

# Timing (seconds). Tuned against a genuine charger, see config.Timing
RESET_BREAK_DURATION    = 0.3
RESET_SETTLE_DURATION   = 0.3
RESET_SYNC_DELAY        = 0.01
RESET_RETRIES           = 3
RESET_RETRY_DELAY       = 0.5
RESPONSE_SETTLE_DELAY   = 0.05      # isolation circuits need a gap after each reply
REFRESH_SETTLE_DELAY    = 0.1
KEEPALIVE_INTERVAL      = 0.5
CONFIGURE_DELAY         = 0.6
KEEPALIVE_FAILURE_LIMIT = 3


# Battery type code (from the serial number register): (capacity Ah, description)
batteryTypes = {    36: (1,  "1.5Ah CP (5s1p 18650)"),
                    37: (2,  "2Ah CP (5s1p 18650)"),
                    38: (3,  "3Ah XC (5s2p 18650)"),
                    39: (4,  "4Ah XC (5s2p 18650)"),
                    40: (5,  "5Ah XC (5s2p 18650) (<= Dec 2018)"),
                    165: (5, "5Ah XC (5s2p 18650) (Aug 2019 - Jun 2021)"),
                    306: (5, "5Ah XC (5s2p 18650) (Feb 2021 - Jul 2023)"),
                    424: (5, "5Ah XC (5s2p 18650) (>= Sep 2023)"),
                    46: (6,  "6Ah XC (5s2p 18650)"),
                    47: (9,  "9Ah HD (5s3p 18650)"),
                    104: (3, "3Ah HO (5s1p 21700)"),
                    150: (6, "5.5Ah HO (5s2p 21700) (EU only)"),
                    106: (6, "6Ah HO (5s2p 21700)"),
                    107: (8, "8Ah HO (5s2p 21700)"),
                    108: (12, "12Ah HO (5s3p 21700)"),
                    383: (8, "8Ah Forge (5s2p 21700 tabless)"),
                    384: (12, "12Ah Forge (5s3p 21700 tabless)")}
