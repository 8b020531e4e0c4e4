"""
Input validation schemas using Marshmallow for API endpoints.
"""
from marshmallow import Schema, fields, validate, validates_schema, ValidationError

from sheet.rows import ROW_FIELDS


class ParseTextSchema(Schema):
    """Validation schema for the pasted-text form field."""
    text = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.Length(max=200000),
        error_messages={'invalid': 'Text must be a string'}
    )


class ExportRequestSchema(Schema):
    """Validation schema for stateless export requests."""
    rows = fields.List(
        fields.Dict(keys=fields.Str()),
        required=True,
        error_messages={
            'required': 'Rows field is required',
            'invalid': 'Rows must be a list of objects'
        }
    )
    line_items = fields.List(
        fields.Dict(keys=fields.Str()),
        required=False,
        load_default=list,
        data_key='lineItems',
        error_messages={'invalid': 'Line items must be a list of objects'}
    )
    filename = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.Length(max=255),
        error_messages={'invalid': 'Filename must be a valid string'}
    )


class ExportQuerySchema(Schema):
    """Validation schema for sheet export query parameters."""
    format = fields.Str(
        required=False,
        validate=validate.OneOf(['csv', 'xlsx']),
        load_default='csv',
        error_messages={'invalid': 'Export format must be csv or xlsx'}
    )
    filename = fields.Str(
        required=False,
        validate=validate.Length(max=255)
    )


class SheetCreateSchema(Schema):
    """Validation schema for creating a sheet from documents or rows."""
    documents = fields.List(fields.Dict(keys=fields.Str()), required=False)
    rows = fields.List(fields.Dict(keys=fields.Str()), required=False)

    @validates_schema
    def require_one_source(self, data, **kwargs):
        if 'documents' not in data and 'rows' not in data:
            raise ValidationError('Provide either documents or rows', 'documents')


class CellUpdateSchema(Schema):
    """Validation schema for a single grid cell edit."""
    field = fields.Str(
        required=True,
        validate=validate.OneOf(ROW_FIELDS),
        error_messages={'required': 'Field is required'}
    )
    value = fields.Raw(required=True, allow_none=True)
