"""
pydyno constants
"""

# Operations
BATCH_WRITE_ITEM = 'BatchWriteItem'
DESCRIBE_TABLE = 'DescribeTable'
BATCH_GET_ITEM = 'BatchGetItem'
CREATE_TABLE = 'CreateTable'
DELETE_TABLE = 'DeleteTable'
LIST_TABLES = 'ListTables'
UPDATE_ITEM = 'UpdateItem'
DELETE_ITEM = 'DeleteItem'
GET_ITEM = 'GetItem'
PUT_ITEM = 'PutItem'
QUERY = 'Query'
SCAN = 'Scan'

# Request Parameters
RETURN_CONSUMED_CAPACITY = 'ReturnConsumedCapacity'
TABLE_DESCRIPTION = 'TableDescription'
UNPROCESSED_KEYS = 'UnprocessedKeys'
UNPROCESSED_ITEMS = 'UnprocessedItems'
CONSISTENT_READ = 'ConsistentRead'
DELETE_REQUEST = 'DeleteRequest'
REQUEST_ITEMS = 'RequestItems'
ATTRS_TO_GET = 'AttributesToGet'
TABLE_STATUS = 'TableStatus'
INDEX_STATUS = 'IndexStatus'
TABLE_NAME = 'TableName'
CAMEL_COUNT = 'Count'
PUT_REQUEST = 'PutRequest'
ATTRIBUTES = 'Attributes'
TABLE_KEY = 'Table'
RESPONSES = 'Responses'
ACTIVE = 'ACTIVE'
ITEMS = 'Items'
ITEM = 'Item'
KEYS = 'Keys'
KEY = 'Key'

# Response Parameters
SCANNED_COUNT = 'ScannedCount'
RESPONSE_METADATA = 'ResponseMetadata'

# Expression Parameters
EXPRESSION_ATTRIBUTE_NAMES = 'ExpressionAttributeNames'
EXPRESSION_ATTRIBUTE_VALUES = 'ExpressionAttributeValues'
PROJECTION_EXPRESSION = 'ProjectionExpression'

# Pagination
EXCLUSIVE_START_KEY = 'ExclusiveStartKey'
LAST_EVALUATED_KEY = 'LastEvaluatedKey'

# Defaults
SERVICE_NAME = 'dynamodb'

# Attribute Types
BINARY = 'B'
BINARY_SET = 'BS'
BOOLEAN = 'BOOL'
LIST = 'L'
MAP = 'M'
NULL = 'NULL'
NUMBER = 'N'
NUMBER_SET = 'NS'
STRING = 'S'
STRING_SET = 'SS'

SET_TYPES = [BINARY_SET, NUMBER_SET, STRING_SET]

# Secondary indexes
GLOBAL_SECONDARY_INDEXES = 'GlobalSecondaryIndexes'
LOCAL_SECONDARY_INDEXES = 'LocalSecondaryIndexes'

# Consumed capacity
CONSUMED_CAPACITY = 'ConsumedCapacity'
CAPACITY_UNITS = 'CapacityUnits'
NONE = 'NONE'

# Error codes
RESOURCE_NOT_FOUND = 'ResourceNotFoundException'
RATE_LIMITING_ERROR_CODES = ['ProvisionedThroughputExceededException', 'ThrottlingException']

# Store-imposed limits on a single BatchGetItem / BatchWriteItem call
BATCH_GET_PAGE_LIMIT = 100
BATCH_WRITE_PAGE_LIMIT = 25

# Seconds between DescribeTable calls while waiting on a table
TABLE_POLL_INTERVAL_SECONDS = 2
