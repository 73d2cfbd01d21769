"""
Canned DynamoDB responses
"""

DESCRIBE_TABLE_DATA = {
    "Table": {
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "version", "AttributeType": "N"},
        ],
        "CreationDateTime": 1.363729002358E9,
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "VersionIndex",
                "IndexStatus": "ACTIVE",
                "KeySchema": [
                    {"AttributeName": "version", "KeyType": "HASH"},
                ],
                "Projection": {"ProjectionType": "KEYS_ONLY"},
            }
        ],
        "ItemCount": 0,
        "KeySchema": [
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        "TableName": "my-table",
        "TableSizeBytes": 0,
        "TableStatus": "ACTIVE",
    }
}

CREATE_TABLE_DATA = {
    "TableDescription": {
        "TableName": "my-table",
        "TableStatus": "CREATING",
    }
}

DELETE_TABLE_DATA = {
    "TableDescription": {
        "TableName": "my-table",
        "TableStatus": "DELETING",
    }
}

LIST_TABLE_DATA = {
    "TableNames": ["my-table", "other-table"]
}

REGION = 'us-east-1'
TEST_TABLE_NAME = 'my-table'
PATCH_METHOD = 'pydyno.connection.Connection._make_api_call'
