from rest_framework import serializers

from academics import models as ac_models
from exams import models as exam_models


class BatchSerializer(serializers.ModelSerializer):
    student_ids = serializers.SerializerMethodField()

    class Meta:
        model = exam_models.Batch
        fields = (
            'id', 'label', 'start_time', 'end_time', 'capacity', 'position',
            'is_skipped', 'active_entries', 'student_ids',
        )
        read_only_fields = fields

    def get_student_ids(self, obj):
        return sorted(obj.assignments.values_list('student_id', flat=True))


class TestSerializer(serializers.ModelSerializer):
    school_class_id = serializers.PrimaryKeyRelatedField(
        queryset=ac_models.SchoolClass.objects.all(), source='school_class'
    )
    class_name = serializers.CharField(source='school_class.name', read_only=True)
    batches = BatchSerializer(many=True, read_only=True)

    class Meta:
        model = exam_models.Test
        fields = (
            'id', 'title', 'subject', 'school_class_id', 'class_name', 'session',
            'instructions', 'duration_minutes', 'total_marks',
            'status', 'version', 'created_by', 'created_at', 'updated_at', 'batches',
        )
        read_only_fields = ('status', 'version', 'created_by', 'created_at', 'updated_at')


class BatchInputSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=100, required=False, allow_blank=True)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    capacity = serializers.IntegerField(required=False, allow_null=True, default=None)
    student_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class ReplaceBatchesSerializer(serializers.Serializer):
    # Range and overlap checks stay in the lifecycle service so they keep their error codes.
    batches = BatchInputSerializer(many=True, allow_empty=True)
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None)


class TransitionSerializer(serializers.Serializer):
    to = serializers.ChoiceField(choices=exam_models.Test.Status.choices)
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None)
    early_close = serializers.BooleanField(required=False, default=False)
    force = serializers.BooleanField(required=False, default=False)


class TransitionLogSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source='actor.username', read_only=True, default=None)

    class Meta:
        model = exam_models.TestTransitionLog
        fields = ('id', 'from_state', 'to_state', 'actor', 'actor_username', 'occurred_at', 'forced', 'early_close')
        read_only_fields = fields


class EnterSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    now = serializers.DateTimeField(required=False, allow_null=True, default=None)


class ExamEntrySerializer(serializers.ModelSerializer):
    batch_label = serializers.CharField(source='batch.label', read_only=True)

    class Meta:
        model = exam_models.ExamEntry
        fields = (
            'token', 'test', 'batch', 'batch_label', 'student', 'issued_at', 'start_deadline',
            'expires_at', 'started_at', 'released_at', 'release_reason',
        )
        read_only_fields = fields
