"""Prompts for schema and DBT rule generation.

Templates use ``${...}`` placeholders rather than ``{...}`` so the JSON
examples they carry need no escaping and user-supplied overrides can be
pasted in as-is.
"""

SCHEMA_SYSTEM_PROMPT = "You are a data analysis assistant that generates detailed schema information from tabular data."

RULES_SYSTEM_PROMPT = "You are a DBT expert that generates high-quality DBT rules and tests based on schema information."

DEFAULT_SCHEMA_PROMPT = """I need you to analyze this tabular data and generate a detailed schema with relational information.

File Name: ${fileData.name}
File Type: ${fileData.type}

${fileData.sheets}

For each sheet/table, please analyze and provide:

1. **Column Analysis** (for each column):
   - Inferred data type
   - Column description
   - Whether it might contain PII/sensitive data (true/false)
   - Any data quality observations
   - Suggested constraints or validation rules
   - Whether it could be a primary key candidate
   - Whether it could be a foreign key (referencing another table)

2. **Relationship Analysis**:
   - Identify potential primary keys for each table
   - Identify potential foreign key relationships between tables
   - Suggest join patterns and relationships
   - Identify lookup/reference tables vs fact tables

3. **Data Modeling Insights**:
   - Table classification (fact, dimension, lookup, bridge)
   - Suggested table relationships (one-to-one, one-to-many, many-to-many)
   - Potential composite keys
   - Normalization recommendations

The relationships section drives the entity-relationship diagram. Include at least one relationship between tables when possible, with fromTable, toTable, fromColumn and toColumn set.

Respond with a JSON object in this format:
{
  "schemas": [
    {
      "sheetName": "Sheet1",
      "tableName": "suggested_table_name",
      "description": "Description of this table",
      "tableType": "fact|dimension|lookup|bridge",
      "primaryKey": {"columns": ["column1"], "type": "simple|composite", "confidence": "high|medium|low"},
      "columns": [
        {
          "name": "column_name",
          "dataType": "inferred_type",
          "description": "column description",
          "isPII": false,
          "isPrimaryKey": false,
          "isForeignKey": false,
          "qualityObservations": ["observation"],
          "constraints": ["constraint"],
          "flags": [{"label": "CUSTOM_FLAG", "class": "bg-secondary"}],
          "foreignKeyReference": {"referencedTable": "table_name", "referencedColumn": "column_name", "confidence": "high|medium|low"}
        }
      ]
    }
  ],
  "relationships": [
    {
      "fromTable": "table1",
      "fromColumn": "column1",
      "toTable": "table2",
      "toColumn": "column2",
      "relationshipType": "one-to-one|one-to-many|many-to-many",
      "joinType": "inner|left|right|full",
      "confidence": "high|medium|low",
      "description": "Description of the relationship"
    }
  ],
  "suggestedJoins": [
    {
      "description": "Common join pattern",
      "sqlPattern": "SELECT * FROM table1 t1 JOIN table2 t2 ON t1.key = t2.key",
      "tables": ["table1", "table2"],
      "useCase": "What this join is used for"
    }
  ],
  "modelingRecommendations": ["Recommendation about data modeling"]
}"""

DEFAULT_RULES_PROMPT = """Based on the following schema information with relationships, generate comprehensive DBT rules including models, tests, and configurations.

Schema Data: ${schemaData}

For each table, provide:
1. Simple, reliable DBT model SQL that selects from the single seed table and filters for this entity if needed
2. Appropriate tests for each column, including relationship tests for identified foreign keys
3. Documentation configuration
4. A recommended materialization strategy

Use tests like not_null, unique, accepted_values, relationships and custom data quality tests where appropriate.

Data loading:
- Data is loaded via dbt seeds, NOT sources
- The dataset file becomes a SINGLE seed table named "${seedName}"
- ALL models must use: SELECT * FROM {{ seed('${seedName}') }}
- Tests run on the created model tables, not the seed

YAML formatting:
- Quote all string values with double quotes
- Never use regex patterns or expressions that require escaping
- All test expressions must be valid DuckDB SQL that evaluates to boolean
- Use simple LENGTH, IS NULL or comparison operators only

Respond with a JSON object in this format:
{
  "dbtRules": [
    {
      "tableName": "table_name",
      "modelSql": "SELECT * FROM {{ seed('${seedName}') }}",
      "yamlConfig": "models:\\n  - name: table_name\\n    columns:\\n      - name: id\\n        tests:\\n          - not_null",
      "tests": [
        {
          "column": "column_name",
          "tests": ["not_null", "unique"],
          "relationships": [{"test": "relationships", "to": "ref('target_table')", "field": "target_column"}]
        }
      ],
      "recommendations": ["recommendation"],
      "materialization": "table|view|incremental|ephemeral",
      "relationships": [{"description": "Relationship description", "joinLogic": "SQL join logic"}]
    }
  ],
  "globalRecommendations": ["Overall DBT project recommendation"],
  "summary": "A concise summary of the generated DBT rules for technical and non-technical users."
}"""
