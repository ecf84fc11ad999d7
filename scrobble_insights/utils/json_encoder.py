"""Custom JSON encoding utilities"""
import dataclasses
import datetime
import json

from pydantic import BaseModel

class DateTimeEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles datetimes, dataclasses and pydantic models"""
    def default(self, obj):
        if isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode='json')
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            fields = {field.name: getattr(obj, field.name) for field in dataclasses.fields(obj)}
            # Derived text such as a check's rendered body
            if hasattr(type(obj), 'body'):
                fields['body'] = obj.body
            return fields
        return super().default(obj)

def json_dumps(obj, **kwargs):
    """Helper function to dump JSON with datetime handling"""
    return json.dumps(obj, cls=DateTimeEncoder, **kwargs)
